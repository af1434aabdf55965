"""Wealth management CRM API."""
