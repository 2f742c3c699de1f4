#!/usr/bin/env python3
"""
Tourbook Backend Application Runner
"""
import logging
import os
from tourbook import create_app, db
from tourbook.models import Property, Tour

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
)

app = create_app()

@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'Property': Property,
        'Tour': Tour
    }

if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
