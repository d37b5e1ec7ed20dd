"""Chat-operated deployment bot for Slack, GitHub and Kubernetes."""
