"""Error classification and automatic retries."""
