"""Questline Core Engine: 순수 도메인 로직 (DB/HTTP 무관)"""
