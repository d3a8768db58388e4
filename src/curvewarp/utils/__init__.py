"""Small helpers shared across curvewarp."""
