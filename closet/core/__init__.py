"""Marketplace core: catalog, visibility, ranking, settlement, moderation"""
