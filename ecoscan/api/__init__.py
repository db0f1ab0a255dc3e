"""HTTP API for the ecoscan gamification service"""
