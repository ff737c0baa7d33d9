"""Notifiable models used only by the notification tests."""
