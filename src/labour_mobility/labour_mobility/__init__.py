"""Labour mobility attendance appeals package.

Organized by feature modules (attendance, appeals, users, ...) with a thin
Flask controller layer over service/repository layers.
"""
