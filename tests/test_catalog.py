import pytest

from storefront.core.errors import NotFound, UpstreamTimeout, ValidationError
from tests.conftest import add_product, png

FIELDS = {"name": "Mug", "description": "Stoneware mug", "price": 12.5, "category": "kitchen"}


@pytest.mark.asyncio
async def test_create_then_get_round_trip(catalog, media):
    created = await catalog.create_product(FIELDS, [png("front.png"), png("back.png")])
    fetched = catalog.get_product(created.id)

    assert (fetched.name, fetched.price, fetched.category) == ("Mug", 12.5, "kitchen")
    assert [img.url for img in fetched.images] == [img.url for img in media.uploaded]
    assert fetched.images[0].url.endswith("/front.png")
    assert fetched.images[1].url.endswith("/back.png")
    assert fetched.image_url == fetched.images[0].url


@pytest.mark.asyncio
async def test_create_merges_existing_urls_after_uploads(catalog):
    created = await catalog.create_product(FIELDS, [png()], ["https://cdn.test/old.jpg", "  "])
    assert [img.url for img in created.images][1:] == ["https://cdn.test/old.jpg"]
    assert created.images[1].public_id is None


@pytest.mark.asyncio
async def test_create_without_images(catalog):
    created = await catalog.create_product(FIELDS)
    assert created.images == []
    assert created.image_url == ""


@pytest.mark.asyncio
async def test_create_enumerates_missing_and_invalid_fields(catalog, db):
    with pytest.raises(ValidationError) as exc:
        await catalog.create_product({"name": "  ", "price": 0})
    assert set(exc.value.errors) == {"name", "description", "price", "category"}
    assert db.products.count_documents({}) == 0


@pytest.mark.asyncio
async def test_create_rounds_price_to_cents(catalog):
    created = await catalog.create_product({**FIELDS, "price": "19.999"})
    assert created.price == 20.0


@pytest.mark.asyncio
async def test_create_rejects_too_many_files(catalog, media, settings):
    files = [png(f"{n}.png") for n in range(settings.MAX_PRODUCT_IMAGES + 1)]
    with pytest.raises(ValidationError) as exc:
        await catalog.create_product(FIELDS, files)
    assert "images" in exc.value.errors
    assert media.uploaded == []


@pytest.mark.asyncio
async def test_create_rejects_non_image_and_oversized_files(catalog, settings):
    from storefront.services.media import ImageUpload

    with pytest.raises(ValidationError):
        await catalog.create_product(FIELDS, [ImageUpload("notes.txt", "text/plain", b"hello")])
    with pytest.raises(ValidationError):
        await catalog.create_product(FIELDS, [png(size=settings.MAX_IMAGE_BYTES + 1)])


@pytest.mark.asyncio
async def test_failed_upload_rolls_back_the_rest(catalog, media, db):
    media.fail_uploads = {"broken.png"}
    with pytest.raises(UpstreamTimeout):
        await catalog.create_product(FIELDS, [png("ok.png"), png("broken.png")])

    assert [img.url for img in media.deleted] == [img.url for img in media.uploaded]
    assert db.products.count_documents({}) == 0


@pytest.mark.asyncio
async def test_update_with_files_deletes_every_old_image(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png"), png("b.png")])
    result = await catalog.update_product(created.id, {}, [png("c.png")])

    assert len(media.deleted) == 2
    assert [img.url for img in result.value.images] == [media.uploaded[-1].url]
    assert not result.degraded


@pytest.mark.asyncio
async def test_update_with_files_survives_delete_failures(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png"), png("b.png"), png("c.png")])
    media.fail_deletes = True

    result = await catalog.update_product(created.id, {"name": "Big Mug"}, [png("new.png")])

    assert len(media.deleted) == 3
    assert result.degraded
    assert len(result.warnings()) == 3
    stored = catalog.get_product(created.id)
    assert stored.name == "Big Mug"
    assert [img.url for img in stored.images] == [media.uploaded[-1].url]


@pytest.mark.asyncio
async def test_update_with_replacement_urls_keeps_old_assets(catalog, media):
    created = await catalog.create_product(FIELDS, [png()])
    urls = ["https://cdn.test/1.jpg", "https://cdn.test/2.jpg"]

    result = await catalog.update_product(created.id, {}, replacement_urls=urls)

    assert media.deleted == []
    assert [img.url for img in result.value.images] == urls


@pytest.mark.asyncio
async def test_update_with_empty_replacement_list_clears_images(catalog, media):
    created = await catalog.create_product(FIELDS, [png()])
    result = await catalog.update_product(created.id, {}, replacement_urls=[])
    assert result.value.images == []
    assert media.deleted == []


@pytest.mark.asyncio
async def test_update_files_win_over_replacement_urls(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png")])
    result = await catalog.update_product(created.id, {}, [png("b.png")], ["https://cdn.test/x.jpg"])
    assert [img.url for img in result.value.images] == [media.uploaded[-1].url]


@pytest.mark.asyncio
async def test_update_is_partial(catalog, media):
    created = await catalog.create_product(FIELDS, [png()])
    result = await catalog.update_product(created.id, {"price": 15})

    product = result.value
    assert product.price == 15.0
    assert (product.name, product.description, product.category) == ("Mug", "Stoneware mug", "kitchen")
    assert [img.url for img in product.images] == [img.url for img in created.images]
    assert media.deleted == []


@pytest.mark.asyncio
async def test_update_rejects_invalid_supplied_values(catalog):
    created = await catalog.create_product(FIELDS)
    with pytest.raises(ValidationError) as exc:
        await catalog.update_product(created.id, {"price": -3, "name": ""})
    assert set(exc.value.errors) == {"price", "name"}
    assert catalog.get_product(created.id).price == 12.5


@pytest.mark.asyncio
@pytest.mark.parametrize("product_id", ["64b7f0c2a1b2c3d4e5f60718", "not-an-id"])
async def test_update_and_delete_unknown_product(catalog, product_id):
    with pytest.raises(NotFound):
        await catalog.update_product(product_id, {"name": "x"})
    with pytest.raises(NotFound):
        await catalog.delete_product(product_id)


@pytest.mark.asyncio
async def test_delete_removes_product_even_when_assets_fail(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png"), png("b.png")])
    media.fail_deletes = True

    result = await catalog.delete_product(created.id)

    assert result.value == created.id
    assert len(result.side_failures) == 2
    assert len(media.deleted) == 2
    with pytest.raises(NotFound):
        catalog.get_product(created.id)


@pytest.mark.asyncio
async def test_delete_clean(catalog, media):
    created = await catalog.create_product(FIELDS, [png()])
    result = await catalog.delete_product(created.id)
    assert not result.degraded
    assert media.deleted[0].public_id == "asset-1"


def test_list_products_filters_by_category(catalog, db):
    add_product(db, "Mug", category="kitchen")
    add_product(db, "Tote", category="bags")
    assert [p.name for p in catalog.list_products("bags")] == ["Tote"]
    assert len(catalog.list_products()) == 2


@pytest.mark.asyncio
async def test_standalone_upload(catalog, media):
    stored = await catalog.upload_image(png("solo.png"))
    assert stored.url == media.uploaded[0].url


@pytest.mark.asyncio
@pytest.mark.parametrize("price", ["nan", "inf", "-inf", float("nan"), float("inf")])
async def test_non_finite_prices_rejected(catalog, db, price):
    with pytest.raises(ValidationError) as exc:
        await catalog.create_product({**FIELDS, "price": price})
    assert exc.value.errors == {"price": "Valid price is required"}
    assert db.products.count_documents({}) == 0

    created = await catalog.create_product(FIELDS)
    with pytest.raises(ValidationError) as exc:
        await catalog.update_product(created.id, {"price": price})
    assert "price" in exc.value.errors


@pytest.mark.asyncio
async def test_unexpected_delete_errors_do_not_block_delete(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png")])
    media.delete_error = RuntimeError("boom")

    result = await catalog.delete_product(created.id)

    assert result.degraded
    assert "boom" in result.warnings()[0]
    with pytest.raises(NotFound):
        catalog.get_product(created.id)


@pytest.mark.asyncio
async def test_unexpected_delete_errors_do_not_block_update(catalog, media):
    created = await catalog.create_product(FIELDS, [png("a.png")])
    media.delete_error = AttributeError("'list' object has no attribute 'get'")

    result = await catalog.update_product(created.id, {"name": "Big Mug"}, [png("b.png")])

    assert result.degraded
    stored = catalog.get_product(created.id)
    assert stored.name == "Big Mug"
    assert [img.url for img in stored.images] == [media.uploaded[-1].url]
