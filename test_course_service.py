import httpx
import pytest

from studymatch.services.course_service import (
    CourseService,
    CourseCatalogError,
    format_time,
    select_sections,
)


def klass(section, component, days="MoWe", start="09.30.00.000000-04:00", end="10.45.00.000000-04:00"):
    return {
        'subject': "CS", 'catalog_nbr': "3240", 'class_section': section, 'class_nbr': 12345,
        'component': component, 'descr': "Advanced Software Development",
        'meetings': [{'days': days, 'start_time': start, 'end_time': end}],
    }


def paged_transport(pages, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(dict(request.url.params))
        page = int(request.url.params['page'])
        return httpx.Response(200, json={'classes': pages[page - 1] if page <= len(pages) else []})
    return httpx.MockTransport(handler)


def test_format_time():
    assert format_time("09.30.00.000000-04:00") == "09:30"
    assert format_time("14.05.00") == "14:05"
    assert format_time("8.5") == "8:05"
    assert format_time("") == ""
    assert format_time(None) == ""
    assert format_time(930) == ""


def test_select_prefers_lectures():
    classes = [klass("001", "LEC"), klass("101", "LAB"), klass("002", "LEC")]
    assert [c['class_section'] for c in select_sections(classes)] == ["001", "002"]


def test_select_falls_back_to_labs():
    classes = [klass("101", "LAB"), klass("102", "LAB"), klass("201", "DIS")]
    assert [c['class_section'] for c in select_sections(classes)] == ["101", "102"]


@pytest.mark.asyncio
async def test_pages_until_empty_and_maps_sections():
    seen = []
    service = CourseService(transport=paged_transport(
        [[klass("001", "LEC"), klass("101", "LAB")], [klass("002", "LEC", days="", start=None)]],
        seen,
    ))

    sections = await service.get_course_sections("cs", "3240")

    assert [p['page'] for p in seen] == ["1", "2", "3"]
    assert seen[0]['subject'] == "CS"
    assert seen[0]['catalog_nbr'] == "3240"
    assert [s.section for s in sections] == ["001", "002"]
    assert sections[0].startTime == "09:30"
    assert sections[0].endTime == "10:45"
    assert sections[0].meetDays == "MoWe"
    assert sections[1].meetDays == "TBA"
    assert sections[1].startTime == ""


@pytest.mark.asyncio
async def test_class_without_meetings():
    raw = klass("001", "LEC")
    raw['meetings'] = []
    service = CourseService(transport=paged_transport([[raw]]))

    sections = await service.get_course_sections("CS", "3240")

    assert sections[0].meetDays == "TBA"
    assert sections[0].startTime == ""


@pytest.mark.asyncio
async def test_http_error_raises_catalog_error():
    service = CourseService(transport=httpx.MockTransport(lambda request: httpx.Response(503)))

    with pytest.raises(CourseCatalogError) as exc:
        await service.get_course_sections("CS", "3240")
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_non_json_page_raises_catalog_error():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, text="<html>Down for maintenance</html>", headers={"content-type": "text/html"})
    )

    with pytest.raises(CourseCatalogError, match="invalid JSON"):
        await CourseService(transport=transport).get_course_sections("CS", "3240")


@pytest.mark.asyncio
async def test_non_object_page_raises_catalog_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(CourseCatalogError, match="Unexpected"):
        await CourseService(transport=transport).get_course_sections("CS", "3240")


@pytest.mark.asyncio
async def test_subject_and_catalog_required():
    with pytest.raises(ValueError):
        await CourseService().get_course_sections("", "3240")
