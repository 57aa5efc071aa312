#!/usr/bin/env python3
"""
Main entry point for the dues tracker API
"""
import os

from app import create_app

app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8080))

    print("🏛️ Starting dues tracker...")
    print(f"📡 Running on port {port}")

    app.run(host='0.0.0.0', port=port, debug=app.config.get('DEBUG', False))
