"""Maintainer Firewall: rule-based triage of GitHub webhook events."""

__version__ = "0.1.0"
