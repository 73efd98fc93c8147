"""Telegram front-end for the command dispatcher."""
