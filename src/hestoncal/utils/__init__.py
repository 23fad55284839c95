"""Shared configuration, logging and timing helpers."""
