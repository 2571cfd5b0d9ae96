# app.py
"""
Entrypoint da aplicação.

Uso:
  python app.py migrate --db estoque.db
  python app.py produto add CAM-001 --nome "Camiseta" --preco 29.9 --qtd 10 --kit CAM-001-K3:3:Kit 3
  python app.py baixa CAM-001-K3 --user u1 --nome Ana
  python app.py mov list
  python app.py mov export movimentos.xlsx
"""

from estoque_scan.adapters.cli import main

if __name__ == "__main__":
    main()
