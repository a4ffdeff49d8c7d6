"""Configuration, logging, database access and error types shared by the app."""
