"""AniFlow Command Line Interface"""
