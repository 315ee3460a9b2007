"""Rolling instance refresh for the Auto Scaling Groups of a cluster."""
