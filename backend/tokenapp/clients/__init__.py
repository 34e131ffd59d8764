"""Outbound HTTP clients for the payment gateway and the meter vending API."""
