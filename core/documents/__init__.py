"""Billing documents: activity report, certification and invoice.

Each document is built from one context dict (see ``context.py``) and can be
rendered either as HTML through Django templates or as a PDF through
reportlab.
"""
