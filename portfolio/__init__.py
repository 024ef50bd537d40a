"""portfolio/ -- Projects, contact messages, categories and uploaded images.

Layer rule: portfolio/ may import from core/ but never from api/ or auth/.
"""
