"""Discord 봇"""
