"""HTML rendering for the try-on page."""

from html import escape
from urllib.parse import quote

from jewelry_tryon.domain.photos import PhotoRole
from jewelry_tryon.domain.sessions import Stage, TryOnSession
from jewelry_tryon.services.storage import THUMBNAILS_DIR, StoragePaths


def render_page(session: TryOnSession, storage: StoragePaths) -> str:
    """Render the page body for the session's current stage."""
    if session.stage is Stage.UPLOADED:
        body = _uploaded_section(session)
    elif session.stage is Stage.PROCESSED and session.result_photo:
        body = _processed_section(session)
    else:
        body = _form_section(session, storage)
    error = ""
    if session.last_error:
        error = f'<div class="error-message"><p>{escape(session.last_error)}</p></div>'
    return _PAGE_HTML.format(error=error, body=body)


def _file_url(ref: str) -> str:
    return f"?file={quote(ref, safe='')}"


def _image_box(title: str, ref: str | None) -> str:
    if ref:
        image = f'<img src="{escape(_file_url(ref))}" alt="{escape(title)}">'
    else:
        image = '<div class="missing">Image not found</div>'
    return (
        f'<div class="image-box"><div class="section-title">{escape(title)}</div>'
        f"{image}</div>"
    )


def _gallery(role: PhotoRole, storage: StoragePaths) -> str:
    thumbnails = storage.list_thumbnails(role)
    if not thumbnails:
        label = "user" if role is PhotoRole.USER else "jewelry"
        return f'<p class="no-thumbnails">No {label} photos uploaded yet.</p>'
    images = []
    for thumbnail in thumbnails:
        original = storage.original_name_for_thumbnail(thumbnail)
        src = _file_url(f"{THUMBNAILS_DIR}/{thumbnail}")
        images.append(
            f'<img src="{escape(src)}" class="thumbnail" '
            f'data-role="{role}" data-name="{escape(original)}" '
            'onclick="selectThumbnail(this)">'
        )
    return "".join(images)


def _upload_column(
    role: PhotoRole, title: str, storage: StoragePaths, selected: str, pinned: bool
) -> str:
    field = f"{role}_photo"
    checked = " checked" if pinned else ""
    return (
        '<td class="upload-column"><div class="upload-section">'
        f"<h3>{escape(title)}</h3>"
        f'<input type="file" id="{field}" name="{field}" accept="image/*">'
        f'<input type="hidden" name="{field}_selected" id="{field}_selected" '
        f'value="{escape(selected)}">'
        f'<label><input type="checkbox" name="pin_{role}" value="1"{checked}> '
        "Keep for next try-on</label>"
        "<h4>Or select from gallery:</h4>"
        f'<div class="thumbnail-gallery" id="{role}-gallery">'
        f"{_gallery(role, storage)}</div></div></td>"
    )


def _form_section(session: TryOnSession, storage: StoragePaths) -> str:
    user_column = _upload_column(
        PhotoRole.USER,
        "Upload Your Photo",
        storage,
        session.user_photo or "",
        session.pin_user,
    )
    jewelry_column = _upload_column(
        PhotoRole.JEWELRY,
        "Upload Jewelry Photo",
        storage,
        session.jewelry_photo or "",
        session.pin_jewelry,
    )
    return (
        '<form action="/" method="POST" enctype="multipart/form-data">'
        '<input type="hidden" name="action" value="upload">'
        '<input type="hidden" name="pins_submitted" value="1">'
        f'<table class="upload-table"><tr>{user_column}{jewelry_column}</tr></table>'
        '<div class="submit-section"><button type="submit">'
        "Upload/Select Photos</button></div></form>"
    )


def _reset_form() -> str:
    return (
        '<form action="/" method="POST" class="inline">'
        '<input type="hidden" name="action" value="reset">'
        '<button type="submit">Start Over</button></form>'
    )


def _uploaded_section(session: TryOnSession) -> str:
    return (
        '<div class="top-section">'
        f'{_image_box("Your Photo", session.user_photo)}'
        f'{_image_box("Jewelry Photo", session.jewelry_photo)}</div>'
        '<div class="buttons-area">'
        '<form action="/" method="POST" class="inline">'
        '<input type="hidden" name="action" value="tryon">'
        '<button type="submit" id="tryonBtn">Try On Jewelry</button></form>'
        f"{_reset_form()}</div>"
    )


def _processed_section(session: TryOnSession) -> str:
    return (
        '<div class="success-message">Jewelry try-on completed successfully!</div>'
        '<div class="top-section">'
        f'{_image_box("Your Photo", session.user_photo)}'
        f'{_image_box("Jewelry Photo", session.jewelry_photo)}</div>'
        '<div class="bottom-section">'
        f'{_image_box("Try-On Result", session.result_photo)}</div>'
        f'<div class="buttons-area">{_reset_form()}</div>'
    )


_PAGE_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Jewelry Try-On Application</title>
    <style>
      body {{ font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; }}
      .thumbnail {{ width: 75px; height: 75px; object-fit: cover; cursor: pointer; }}
      .thumbnail.selected {{ outline: 3px solid #007bff; }}
      .image-box img {{ max-width: 100%; }}
      .error-message {{ color: #b00020; }}
      .inline {{ display: inline; }}
    </style>
  </head>
  <body>
    <div class="container">
      <h1>Jewelry Try-On Application</h1>
      {error}
      {body}
    </div>
    <script>
      function selectThumbnail(img) {{
        const role = img.dataset.role;
        document.querySelectorAll('#' + role + '-gallery .thumbnail')
          .forEach(t => t.classList.remove('selected'));
        img.classList.add('selected');
        document.getElementById(role + '_photo_selected').value = img.dataset.name;
        document.getElementById(role + '_photo').value = '';
      }}
      const tryonBtn = document.getElementById('tryonBtn');
      if (tryonBtn) {{
        tryonBtn.addEventListener('click', () => {{
          tryonBtn.textContent = 'Processing...';
        }});
      }}
    </script>
  </body>
</html>
"""
