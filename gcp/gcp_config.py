# gcp/gcp_config.py

SPANNER_API = "https://spanner.googleapis.com/v1"
MONITORING_API = "https://monitoring.googleapis.com/v3"

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

CPU_UTILIZATION_METRIC = "spanner.googleapis.com/instance/cpu/utilization"
