"""
Notes infrastructure for the EverythingAtHand notes application
Environment configuration, naming, IAM policy assembly and resource plans
consumed by the CDK app under infrastructure/
"""

__version__ = "1.0.0"
