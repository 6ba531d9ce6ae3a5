"""
Run the audit tool with Waitress WSGI server (production-grade, no reloader)
"""
import os
from waitress import serve
from main import app

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    print("\n" + "="*70)
    print("Starting WiBiz Video Audit Tool with Waitress WSGI Server")
    print(f"Listening on 0.0.0.0:{port}")
    print("="*70 + "\n")

    serve(app, host='0.0.0.0', port=port, threads=4)
