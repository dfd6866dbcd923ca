"""Collaborators around the marketplace core"""
