"""
Products Admin Routes
=====================

Provides:
- GET  /            -- product editor page
- GET  /state       -- current form state
- POST /open        -- open the form (create, or edit with product_id/product)
- POST /field       -- change one form field
- POST /select-file -- pick an image (multipart 'file'), returns a preview
- POST /upload      -- upload the picked image to Cloudinary
- POST /submit      -- save the draft to the store
- POST /close       -- discard the draft and hide the form

Each admin session owns one ProductWorkflow, kept in an in-process registry
keyed by an id stored in the Flask session.
"""

import logging
import threading
import time
import uuid

from flask import render_template, request, jsonify, session, current_app, flash

from ...core.auth import token_required
from ...core.errors import ValidationError, TransportError, ServiceError
from ...core.notifications import Notifier, messages_as_json
from . import products_bp
from .draft import ProductDraft, PRODUCT_CATEGORIES, PRODUCT_SUB_CATEGORIES, WIRE_NAMES
from .workflow import ProductWorkflow

logger = logging.getLogger(__name__)

SESSION_KEY = 'product_workflow_id'

# In-memory workflow registry: {workflow_id: {"workflow": ProductWorkflow, "last_seen": ts}}
_workflows = {}
_workflows_lock = threading.Lock()


def _get_catalog():
    """Category -> sub-category options, overridable via app config"""
    return current_app.config.get('PRODUCT_SUB_CATEGORIES') or PRODUCT_SUB_CATEGORIES


def _get_categories():
    return current_app.config.get('PRODUCT_CATEGORIES') or PRODUCT_CATEGORIES


def _build_workflow():
    shopdesk = current_app.extensions['shopdesk']
    return ProductWorkflow(
        uploader=shopdesk.media_client,
        api=shopdesk.build_api_client(),
        notifier=Notifier(),
        catalog=_get_catalog(),
        upload_timeout=shopdesk.upload_timeout,
    )


def _prune_workflows(now, keep=None):
    """Drop idle workflows, then the least recently used ones over the cap.

    Caller holds _workflows_lock. Busy workflows and `keep` are never dropped.
    """
    idle_seconds = current_app.config.get('WORKFLOW_IDLE_SECONDS') or 1800
    max_workflows = current_app.config.get('MAX_WORKFLOWS') or 200

    expired = [
        key for key, entry in _workflows.items()
        if key != keep and now - entry['last_seen'] > idle_seconds and not entry['workflow'].busy
    ]
    for key in expired:
        del _workflows[key]

    overflow = len(_workflows) - max_workflows
    if overflow > 0:
        oldest = sorted(
            (key for key, entry in _workflows.items() if key != keep and not entry['workflow'].busy),
            key=lambda key: _workflows[key]['last_seen'],
        )
        for key in oldest[:overflow]:
            del _workflows[key]
        expired.extend(oldest[:overflow])

    if expired:
        logger.debug(f"Dropped {len(expired)} product workflows")


def _get_workflow():
    """Workflow for the current admin session, created on first use"""
    workflow_id = session.get(SESSION_KEY)
    now = time.time()
    with _workflows_lock:
        entry = _workflows.get(workflow_id) if workflow_id else None
        if entry is None:
            workflow_id = uuid.uuid4().hex
            entry = {'workflow': _build_workflow(), 'last_seen': now}
            _workflows[workflow_id] = entry
            session[SESSION_KEY] = workflow_id
        entry['last_seen'] = now
        _prune_workflows(now, keep=workflow_id)
    return entry['workflow']


def _release_workflow():
    """Forget this session's workflow once the form is closed"""
    workflow_id = session.pop(SESSION_KEY, None)
    if workflow_id:
        with _workflows_lock:
            _workflows.pop(workflow_id, None)


def workflow_count():
    with _workflows_lock:
        return len(_workflows)


def discard_workflows():
    """Drop every registered workflow"""
    with _workflows_lock:
        _workflows.clear()


def _reply(workflow, success=True, status=200, **extra):
    body = {
        'success': success,
        'workflow': workflow.snapshot(),
        'messages': messages_as_json(workflow.notifier.drain()),
    }
    body.update(extra)
    return jsonify(body), status


def _form_fields(data):
    """Draft fields present in a request body, in draft order"""
    fields = []
    for attr in ProductDraft.field_names():
        wire = WIRE_NAMES[attr]
        if wire in data:
            fields.append((attr, data[wire]))
        elif attr in data:
            fields.append((attr, data[attr]))
    return fields


# ===================
# PAGES
# ===================

@products_bp.route('/')
@token_required
def product_editor():
    """Product editor - main interface"""
    workflow = _get_workflow()
    if not workflow.is_open:
        workflow.open()

    for category, message in workflow.notifier.drain():
        flash(message, category)

    return render_template(
        'products/product_editor.html',
        workflow=workflow,
        form=workflow.snapshot(),
        categories=_get_categories(),
    )


# ===================
# JSON API
# ===================

@products_bp.route('/state')
@token_required
def get_state():
    """Current form state"""
    return _reply(_get_workflow())


@products_bp.route('/open', methods=['POST'])
@token_required
def open_form():
    """Open the form; edit mode when product_id or product is supplied"""
    workflow = _get_workflow()
    data = request.get_json(silent=True) or {}

    product = data.get('product')
    product_id = data.get('product_id')

    if product_id and not product:
        try:
            product = current_app.extensions['shopdesk'].build_api_client().get_product(product_id)
        except (ServiceError, TransportError) as e:
            logger.error(f"Error loading product {product_id}: {e}")
            workflow.notifier.error(getattr(e, 'message', None) or 'Failed to load product')
            return _reply(workflow, success=False, status=502)

    if product and product_id and not product.get('id'):
        product = dict(product, id=product_id)

    if workflow.busy:
        return _reply(workflow, success=False, status=409, error='Form is busy')

    workflow.open(product or None)
    return _reply(workflow)


@products_bp.route('/field', methods=['POST'])
@token_required
def set_field():
    """Change one field: {field, value}"""
    workflow = _get_workflow()
    data = request.get_json(silent=True) or {}

    if not workflow.is_open:
        return _reply(workflow, success=False, status=409, error='Form is not open')
    if 'field' not in data:
        return _reply(workflow, success=False, status=400, error='Field name is required')

    ok = workflow.set_field(data['field'], data.get('value', ''))
    return _reply(workflow, success=ok, status=200 if ok else 400)


@products_bp.route('/select-file', methods=['POST'])
@token_required
def select_file():
    """Pick an image; returns the preview as a data URL"""
    workflow = _get_workflow()
    upload = request.files.get('file')

    if upload is None or not upload.filename:
        return _reply(workflow, success=False, status=400, error='No file provided')

    try:
        workflow.select_file(upload.filename, upload.read(), upload.mimetype)
    except ValidationError as e:
        return _reply(workflow, success=False, status=409, error=str(e))

    return _reply(workflow)


@products_bp.route('/upload', methods=['POST'])
@token_required
def upload_image():
    """Upload the picked image"""
    workflow = _get_workflow()
    result = workflow.upload_selected()

    if result is None:
        status = 409 if workflow.busy or workflow.selected_file else 400
        return _reply(workflow, success=False, status=status)

    return _reply(
        workflow,
        success=result['success'],
        status=200 if result['success'] else 502,
        upload=result,
    )


@products_bp.route('/submit', methods=['POST'])
@token_required
def submit_product():
    """Apply any posted fields, then save the draft"""
    workflow = _get_workflow()
    data = request.get_json(silent=True) or request.form.to_dict()

    if not workflow.is_open:
        return _reply(workflow, success=False, status=409, error='Form is not open')

    for attr, value in _form_fields(data):
        if getattr(workflow.draft, attr) == value:
            continue
        if not workflow.set_field(attr, value):
            return _reply(workflow, success=False, status=400)

    saved = workflow.submit()
    if saved:
        reply = _reply(workflow, refresh=True)
        _release_workflow()
        return reply

    if isinstance(workflow.last_error, ValidationError):
        status = 400
    elif workflow.last_error is None:
        status = 409
    else:
        status = 502
    return _reply(workflow, success=False, status=status)


@products_bp.route('/close', methods=['POST'])
@token_required
def close_form():
    """Discard the draft and hide the form"""
    workflow = _get_workflow()
    workflow.close()
    reply = _reply(workflow)
    _release_workflow()
    return reply
