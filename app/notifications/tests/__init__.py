"""
Tests for the notification engine.

Unit modules (one component each):
- test_models.py, test_registry.py, test_content.py, test_counters.py,
  test_transports.py, test_preferences.py

Integration modules:
- test_channels.py: Delivery channels and the pipeline
- test_services.py: Notification lifecycle
- test_tasks.py: Celery tasks called synchronously
- test_views.py: Inbox API
- test_consumers.py: WebSocket consumer

The testapp package provides notifiable models (Order, Comment).
"""
