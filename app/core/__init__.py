"""브릿지 핵심 로직"""
