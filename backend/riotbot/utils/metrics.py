# /riotbot/utils/metrics.py

from prometheus_client import Counter, Histogram, Gauge

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Tutorial Metrics
tutorial_commands_counter = Counter('tutorial_commands_total', 'Tutorial start commands handled', ['outcome'])
tutorial_messages_counter = Counter('tutorial_messages_total', 'Tutorial step messages sent', ['status', 'message_type'])
tutorials_completed_counter = Counter('tutorials_completed_total', 'Tutorial sessions that reached the last step')
active_sessions_gauge = Gauge('tutorial_sessions_active', 'Tutorial sessions registered and not yet completed')

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
