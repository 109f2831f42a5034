"""Shared utilities: errors, AWS sessions, retries and logging"""
