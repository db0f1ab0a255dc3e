"""Prometheus metrics for the gamification service"""
