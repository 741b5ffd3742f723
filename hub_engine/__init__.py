"""Venue State Engine: friction scoring, confidence tiers and realtime venue state sync for nightlife hubs."""
