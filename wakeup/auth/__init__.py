"""
Authentication service for Wakeup.

This module provides:
- User signup and password login
- JWT access and rotating refresh tokens
- Bearer token identity for protected routes
- Google sign-in
"""
