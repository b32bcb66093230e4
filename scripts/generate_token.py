#!/usr/bin/env python3
"""Script para generar tokens JWT de prueba"""
import sys
import os
import argparse

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.security import create_access_token  # noqa: E402


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generar token JWT de prueba")
    parser.add_argument("--user-id", required=True, help="ID del usuario")
    parser.add_argument("--email", help="Email del usuario")
    parser.add_argument("--role", default="user", choices=["user", "admin", "scanner", "coordinator"], help="Rol del usuario")
    parser.add_argument("--minutes", type=int, default=None, help="Minutos de validez")

    args = parser.parse_args()

    token = create_access_token(args.user_id, role=args.role, email=args.email, expires_minutes=args.minutes)
    print("\nToken generado:")
    print(token)
    print("\nPara usar en curl:")
    print(f'curl -X POST -H "Authorization: Bearer {token}" -H "Content-Type: application/json" '
          f'-d \'{{"qrPayload": "..."}}\' http://localhost:8000/api/v1/tickets/scan')
    print()
