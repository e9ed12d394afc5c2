"""Configuration, logging and API models shared by the router packages."""
