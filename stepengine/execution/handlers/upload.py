# /stepengine/execution/handlers/upload.py
import os

from ...browser import page_scripts
from ...core.errors import ElementNotFoundError, StepExecutionError
from ...core.models import ParsedTestStep
from ..context import StepContext, require


def handle_upload(ctx: StepContext, step: ParsedTestStep) -> None:
    target = require(step.target, "Upload selector (for file input) not provided")
    file_path = require(step.file_path or step.value, "File path for upload not provided")
    if not os.path.isfile(file_path):
        raise StepExecutionError(f"File for upload does not exist: {file_path}")
    ctx.add_log(f"Attempting to upload file \"{file_path}\" to element identified by \"{target}\"")

    element = ctx.find(target, step.original_step, step.index)
    if element is None:
        raise ElementNotFoundError(target, step.original_step)
    try:
        attrs = page_scripts.element_attributes(element)
        if attrs.get("tag") != "input":
            raise StepExecutionError(f"Element for upload selector \"{target}\" is not an input element, but a <{attrs.get('tag')}>.")
        input_type = attrs.get("type") or "text"
        if input_type != "file":
            ctx.add_log(f"Warning: Element for upload selector \"{target}\" is an <input> but not type=\"file\" (it's type=\"{input_type}\"). Attempting upload anyway.")
        element.set_input_files(file_path)
    finally:
        element.dispose()
    ctx.add_log(f"Successfully uploaded file \"{file_path}\" to element \"{target}\"")
