"""Slash command cogs"""
