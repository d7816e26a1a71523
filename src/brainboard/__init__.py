"""Brainboard: brainstorming boards with AI-assisted insights."""
