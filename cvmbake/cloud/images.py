"""Image lookups shared by the validation, source-image and create-image steps."""

from cvmbake.cloud.retry import retry


async def find_image_by_name(cvm_client, name, image_type=None, policy=None):
    """Return the image whose name is exactly *name*, or ``None``.

    The ``image-name`` filter matches loosely, so results are re-checked.
    """
    images = await retry(lambda: cvm_client.describe_images(image_name=name, image_type=image_type), policy)
    for image in images:
        if image.name == name:
            return image
    return None
