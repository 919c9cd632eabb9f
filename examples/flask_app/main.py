import os

from flask import Flask, jsonify

app = Flask(__name__)


@app.route('/')
def index():
    target = os.environ.get('TARGET') or 'world'
    return f'Hello {target}!\n'


@app.route('/healthz')
def healthz():
    return jsonify({'status': 'ok'})


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 8080))
    app.run(host='0.0.0.0', port=port)
