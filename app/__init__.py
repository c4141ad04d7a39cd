"""Discord-Zendesk Bridge"""
