"""
URL configuration for skiff project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.1/topics/http/urls/
"""

from django.urls import include, path

urlpatterns = [
    path("", include("skiff.core.urls")),
]
