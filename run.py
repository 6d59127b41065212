#!/usr/bin/env python3
"""
resume2pdf - Résumé/portfolio page to PDF exporter
Convenient entry point script in project root.
"""

import sys
import os

# Add src directory to Python path so the package runs without installation
project_root = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(project_root, 'src')
sys.path.insert(0, src_path)

# Import and run the CLI
from resume2pdf.cli import main

if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        print("\n⚠️  Export interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        sys.exit(2)
