"""외부 플랫폼 어댑터"""
