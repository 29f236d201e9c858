"""
Service Organization
====================

**application/**
  Services managed by ServiceContainer, one instance per application:
  DailyAggregator, DiagnosisService, AlertService, NotificationsService,
  EnvironmentalCollector.

**utilities/**
  Stateless clients for the external feeds (OpenWeather, ThingSpeak).

**protocols**
  Collaborator interfaces the application services depend on.
"""
