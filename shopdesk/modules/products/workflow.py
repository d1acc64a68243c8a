"""
Product Workflow
================

Drives the add/edit product form:

    open -> select_file -> upload_selected -> submit -> close

One workflow holds one ProductDraft. The image must be uploaded (draft has a
non-empty image_url) before submit is accepted. Upload and submit are guarded
by non-blocking locks so overlapping calls are rejected instead of queued.
"""

import base64
import logging
import mimetypes
import threading
from enum import Enum

from ...core.errors import ValidationError, TransportError, ServiceError
from ...core.storage import upload_image_action
from .draft import ProductDraft, sub_category_options, PRODUCT_SUB_CATEGORIES

logger = logging.getLogger(__name__)


class WorkflowState(Enum):
    IDLE = 'idle'
    FILE_SELECTED = 'file_selected'
    UPLOADING = 'uploading'
    UPLOADED = 'uploaded'
    SUBMITTING = 'submitting'
    CLOSED = 'closed'


SELECTABLE_STATES = (WorkflowState.IDLE, WorkflowState.FILE_SELECTED, WorkflowState.UPLOADED)


class SelectedFile:
    """File picked in the form, held until it is uploaded or replaced"""

    def __init__(self, filename, data, content_type=None):
        self.filename = filename
        self.data = data
        self.content_type = (
            content_type
            or mimetypes.guess_type(filename or '')[0]
            or 'application/octet-stream'
        )

    def as_data_url(self):
        encoded = base64.b64encode(self.data).decode('ascii')
        return f"data:{self.content_type};base64,{encoded}"


class ProductWorkflow:
    """
    Add/edit product controller.

    Args:
        uploader: object with upload(file_bytes, folder, filename, timeout)
        api: object with save_product(payload, product_id=None)
        notifier: object with success(msg) / error(msg)
        on_success: called after a successful save so the caller can refresh
        catalog: category -> sub-category options
        upload_timeout: upper bound passed to the uploader, None for none
    """

    def __init__(self, uploader, api, notifier, on_success=None, catalog=None, upload_timeout=None):
        self.uploader = uploader
        self.api = api
        self.notifier = notifier
        self.on_success = on_success
        self.catalog = PRODUCT_SUB_CATEGORIES if catalog is None else catalog
        self.upload_timeout = upload_timeout

        self.draft = ProductDraft()
        self.product_id = None
        self.selected_file = None
        self.preview = None
        self.state = WorkflowState.CLOSED
        self.last_error = None

        self._upload_lock = threading.Lock()
        self._submit_lock = threading.Lock()

    # ===================
    # PROPERTIES
    # ===================

    @property
    def is_open(self):
        return self.state != WorkflowState.CLOSED

    @property
    def is_editing(self):
        return self.product_id is not None and self.product_id != ''

    @property
    def is_uploading(self):
        return self.state == WorkflowState.UPLOADING

    @property
    def is_submitting(self):
        return self.state == WorkflowState.SUBMITTING

    @property
    def busy(self):
        return self.is_uploading or self.is_submitting

    @property
    def sub_category_options(self):
        return sub_category_options(self.draft.category, self.catalog)

    # ===================
    # LIFECYCLE
    # ===================

    def open(self, product=None):
        """Open in create mode, or edit mode when an existing product is given"""
        self.reset()

        if product:
            self.product_id = product.get('id')
            self.draft = ProductDraft.from_product(product)
            if not self.draft.sub_category_valid(self.catalog):
                logger.warning(
                    f"Product {self.product_id}: sub category '{self.draft.sub_category}' "
                    f"does not belong to '{self.draft.category}', clearing it"
                )
                self.draft.sub_category = ''
            if self.draft.image_url:
                self.preview = self.draft.image_url

        self.state = WorkflowState.IDLE
        logger.debug(f"Product workflow opened ({'edit' if self.is_editing else 'create'})")
        return self

    def reset(self):
        """Empty draft, no file, no preview"""
        self.draft = ProductDraft()
        self.product_id = None
        self.selected_file = None
        self.preview = None
        self.last_error = None

    def close(self):
        """Reset everything and hide the form, whatever the current state"""
        self.reset()
        self.state = WorkflowState.CLOSED
        logger.debug("Product workflow closed")

    # ===================
    # FORM INPUT
    # ===================

    def set_field(self, field, value):
        """Apply one form change. Returns False (with a notification) if rejected."""
        try:
            self.draft.update(field, value, self.catalog)
        except ValidationError as e:
            self.notifier.error(str(e))
            return False
        return True

    def select_file(self, filename, data, content_type=None):
        """Record a picked file and build its preview.

        In create mode any previously uploaded image_url is cleared so the new
        file has to be uploaded before submitting.
        """
        if self.state not in SELECTABLE_STATES:
            raise ValidationError(
                f"Cannot select a file while the form is {self.state.value}"
            )
        if not data:
            raise ValidationError('Selected file is empty')

        self.selected_file = SelectedFile(filename, data, content_type)
        self.preview = self.selected_file.as_data_url()

        if not self.is_editing:
            self.draft.image_url = ''

        self.state = WorkflowState.FILE_SELECTED
        return self.preview

    def upload_selected(self):
        """Upload the selected file once.

        Returns:
            UploadResult dict, or None when rejected before any call
        """
        if not self.selected_file:
            self.notifier.error('Please select an image first')
            return None

        if not self._upload_lock.acquire(blocking=False):
            logger.info("Upload already in progress, ignoring")
            return None

        try:
            if self.state not in SELECTABLE_STATES:
                logger.info(f"Upload rejected while {self.state.value}")
                return None

            self.state = WorkflowState.UPLOADING
            result = upload_image_action(
                self.uploader,
                self.selected_file.data,
                category=self.draft.category or None,
                filename=self.selected_file.filename,
                timeout=self.upload_timeout,
            )

            if result['success'] and result['url']:
                self.draft.image_url = result['url']
                self.state = WorkflowState.UPLOADED
                self.notifier.success('Image uploaded successfully')
            else:
                logger.error(f"Error uploading image: {result['message']}")
                self.state = WorkflowState.FILE_SELECTED
                self.notifier.error('Failed to upload image')
            return result
        finally:
            if self.state == WorkflowState.UPLOADING:
                self.state = WorkflowState.FILE_SELECTED
            self._upload_lock.release()

    # ===================
    # SUBMIT
    # ===================

    def submit(self):
        """Validate and save the draft.

        Returns:
            True when the product was saved and the workflow closed
        """
        if not self._submit_lock.acquire(blocking=False):
            logger.info("Submit already in progress, ignoring")
            return False

        try:
            self.last_error = None
            if self.busy or not self.is_open:
                logger.info(f"Submit rejected while {self.state.value}")
                return False

            try:
                self.draft.validate()
            except ValidationError as e:
                self.last_error = e
                self.notifier.error(str(e))
                return False

            editing = self.is_editing
            action = 'update' if editing else 'add'
            previous_state = self.state
            self.state = WorkflowState.SUBMITTING

            try:
                result = self.api.save_product(
                    self.draft.to_payload(),
                    product_id=self.product_id if editing else None,
                )
            except ServiceError as e:
                return self._submit_failed(previous_state, e, e.message or f"Failed to {action} product")
            except TransportError as e:
                logger.error(f"Error saving product: {e}")
                return self._submit_failed(previous_state, e, 'Failed to save product')

            self.notifier.success(
                result.get('message') or f"Product {'updated' if editing else 'added'} successfully"
            )
            self.close()
            if self.on_success:
                self.on_success()
            return True
        finally:
            if self.state == WorkflowState.SUBMITTING:
                self.state = WorkflowState.IDLE
            self._submit_lock.release()

    def _submit_failed(self, previous_state, error, message):
        self.last_error = error
        self.state = WorkflowState.UPLOADED if previous_state == WorkflowState.UPLOADED else WorkflowState.IDLE
        self.notifier.error(message)
        return False

    # ===================
    # VIEW
    # ===================

    def snapshot(self):
        """JSON-ready view of the form"""
        return {
            'open': self.is_open,
            'mode': 'edit' if self.is_editing else 'create',
            'product_id': self.product_id,
            'state': self.state.value,
            'draft': self.draft.to_dict(),
            'preview': self.preview,
            'selected_file': self.selected_file.filename if self.selected_file else None,
            'sub_category_options': self.sub_category_options,
            'can_upload': self.selected_file is not None and not self.busy,
            'can_submit': bool(self.draft.image_url) and not self.busy,
        }
