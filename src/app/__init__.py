"""
App layer: HTTP 서버 (FastAPI) + 콘솔 쉘.

역할:
- served root 리스팅/파일 전송 라우트
- 리스너별 앱 생성 (main.create_app)
- CLI (데스크톱 쉘 대체)

주의: 폴더 구분
- src/app/templates/ → Jinja2 HTML (listing.html)
- src/app/assets/ → 번들 에셋 (favicon.ico, configs.json 기본값)
"""
