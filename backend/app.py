from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.utils import secure_filename
import logging
import os
import shutil
import tempfile

import config
from engine.errors import ModelLoadError, ModelNotFoundError
from engine.workspace import ModelWorkspace
from logging_config import setup_logging
from maintenance.port_connector import connect_unconnected_blocks
from maintenance.reference_finder import ReferenceModelFinder

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app, origins=["*"])

os.makedirs(config.UPLOAD_FOLDER, exist_ok=True)


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'running', 'message': 'Model maintenance backend is live!'})


@app.route('/references', methods=['POST'])
def references():
    def action(workspace, model_name, upload_dir):
        search = ReferenceModelFinder(workspace, [upload_dir]).find(model_name)
        return search.to_dict()

    return _with_uploaded_model(action)


@app.route('/connect', methods=['POST'])
def connect():
    def action(workspace, model_name, upload_dir):
        workspace.load_system(model_name)
        return connect_unconnected_blocks(workspace, model_name).to_dict()

    return _with_uploaded_model(action)


def _with_uploaded_model(action):
    if 'file' not in request.files:
        return jsonify({'error': 'No file uploaded'}), 400

    file = request.files['file']
    filename = secure_filename(file.filename or '')

    if not filename:
        return jsonify({'error': 'Empty filename'}), 400

    ext = os.path.splitext(filename)[1].lower()
    if ext not in config.MODEL_EXTENSIONS:
        return jsonify({'error': f'Unsupported file type: {ext or filename}'}), 400

    upload_dir = tempfile.mkdtemp(dir=config.UPLOAD_FOLDER)
    try:
        file.save(os.path.join(upload_dir, filename))

        # Referenced models and libraries travel alongside the root model
        for extra in request.files.getlist('files'):
            extra_name = secure_filename(extra.filename or '')
            if os.path.splitext(extra_name)[1].lower() in config.MODEL_EXTENSIONS:
                extra.save(os.path.join(upload_dir, extra_name))

        workspace = ModelWorkspace(search_path=[upload_dir])
        model_name = os.path.splitext(filename)[0]
        result = action(workspace, model_name, upload_dir)
        return jsonify({'success': True, **result})

    except (ModelNotFoundError, ModelLoadError) as e:
        return jsonify({'error': str(e)}), 422

    except Exception as e:
        logger.exception("Request failed for %s", filename)
        return jsonify({'error': str(e)}), 500

    finally:
        shutil.rmtree(upload_dir, ignore_errors=True)


if __name__ == '__main__':
    setup_logging()
    app.run(debug=False, host='0.0.0.0', port=config.PORT)
