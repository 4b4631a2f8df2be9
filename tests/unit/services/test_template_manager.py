"""模板管理服务单元测试."""

import json

import pytest

from certdesigner.models.database import TemplateRecord
from certdesigner.models.template_config import DesignDocument, ElementType, Orientation
from certdesigner.services.template_manager import (
    COPY_SUFFIX,
    TemplateManager,
    create_certificate_design,
)
from certdesigner.utils.exceptions import (
    PersistenceError,
    TemplateLoadError,
    TemplateNotFoundError,
)


@pytest.fixture
def other_manager(db_service) -> TemplateManager:
    """另一个用户的模板管理器."""
    return TemplateManager(db_service, user_id="user-2")


class TestCreateAndLoad:
    """新建和加载测试类."""

    def test_create_blank_template(self, manager):
        """测试新建空白模板."""
        template = manager.create_template("结业证书", description="desc")
        assert template.name == "结业证书"
        assert template.user_id == "user-1"
        assert template.design_data == DesignDocument()
        assert template.created_at is not None

    def test_save_and_load_round_trip(self, manager, sample_document):
        """测试保存后重新加载得到相同文档."""
        template = manager.create_template("A")
        manager.save_design(template.id, sample_document)
        loaded = manager.load_template(template.id)
        assert loaded.design_data == sample_document
        assert [e.id for e in loaded.design_data.elements] == [
            e.id for e in sample_document.elements
        ]

    def test_save_replaces_whole_document(self, manager, sample_document):
        """测试保存整体替换设计文档."""
        template = manager.create_template("A", design=sample_document)
        manager.save_design(template.id, DesignDocument())
        assert manager.load_template(template.id).design_data.elements == []

    def test_load_missing_template(self, manager):
        """测试加载不存在的模板."""
        with pytest.raises(TemplateNotFoundError):
            manager.load_template("missing")

    def test_load_other_users_template(self, manager, other_manager):
        """测试不能加载其他用户的模板."""
        template = other_manager.create_template("B")
        with pytest.raises(TemplateNotFoundError):
            manager.load_template(template.id)

    def test_save_other_users_template(self, manager, other_manager, sample_document):
        """测试不能保存其他用户的模板."""
        template = other_manager.create_template("B")
        with pytest.raises(TemplateNotFoundError):
            manager.save_design(template.id, sample_document)
        assert other_manager.load_template(template.id).design_data.elements == []

    def test_load_fills_missing_properties(self, manager, db_service):
        """测试存储中缺失的页面属性加载时补全."""
        with db_service.session_scope() as session:
            session.add(
                TemplateRecord(
                    id="legacy",
                    user_id="user-1",
                    name="Legacy",
                    design_data={"elements": [{"type": "text", "content": "Hi"}]},
                )
            )
        loaded = manager.load_template("legacy")
        assert loaded.design_data.properties.size.width == 210
        assert loaded.design_data.elements[0].type == ElementType.TEXT

    def test_load_null_design_data(self, manager, db_service):
        """测试 design_data 为 null 时得到空白文档."""
        with db_service.session_scope() as session:
            session.add(TemplateRecord(id="empty", user_id="user-1", name="Empty", design_data=None))
        assert manager.load_template("empty").design_data == DesignDocument()


class TestPublicTemplates:
    """公开模板测试类."""

    def test_list_own_templates(self, manager, other_manager):
        """测试默认只列出自己的模板."""
        manager.create_template("mine")
        other_manager.create_template("theirs", is_public=True)
        names = [t.name for t in manager.list_templates()]
        assert names == ["mine"]

    def test_list_include_public(self, manager, other_manager):
        """测试包含其他用户的公开模板."""
        manager.create_template("mine")
        other_manager.create_template("public", is_public=True)
        other_manager.create_template("private")
        names = {t.name for t in manager.list_templates(include_public=True)}
        assert names == {"mine", "public"}

    def test_load_public_template(self, manager, other_manager):
        """测试可以读取其他用户的公开模板."""
        template = other_manager.create_template("public", is_public=True)
        assert manager.load_public_template(template.id).name == "public"

    def test_load_private_template_denied(self, manager, other_manager):
        """测试不能读取其他用户的私有模板."""
        template = other_manager.create_template("private")
        with pytest.raises(TemplateNotFoundError):
            manager.load_public_template(template.id)

    def test_toggle_public(self, manager):
        """测试设置公开状态."""
        template = manager.create_template("A")
        updated = manager.update_metadata(template.id, is_public=True)
        assert updated.is_public


class TestTemplateOperations:
    """模板操作测试类."""

    def test_rename(self, manager):
        """测试重命名."""
        template = manager.create_template("A")
        manager.rename_template(template.id, "B")
        assert manager.load_template(template.id).name == "B"

    def test_duplicate(self, manager, sample_document):
        """测试复制模板."""
        template = manager.create_template("A", design=sample_document, is_public=True)
        copy = manager.duplicate_template(template.id)
        assert copy.id != template.id
        assert copy.name == f"A{COPY_SUFFIX}"
        assert not copy.is_public
        assert copy.design_data == sample_document

    def test_delete(self, manager):
        """测试删除模板."""
        template = manager.create_template("A")
        manager.delete_template(template.id)
        with pytest.raises(TemplateNotFoundError):
            manager.load_template(template.id)
        assert manager.list_templates() == []

    def test_delete_other_users_template(self, manager, other_manager):
        """测试不能删除其他用户的模板."""
        template = other_manager.create_template("B")
        with pytest.raises(TemplateNotFoundError):
            manager.delete_template(template.id)

    def test_metadata_element_count(self, manager, sample_document):
        """测试元数据中的元素数量."""
        manager.create_template("A", design=sample_document)
        metadata = manager.list_templates()[0]
        assert metadata.element_count == 4
        assert metadata.to_dict()["name"] == "A"


class TestImportExport:
    """导入导出测试类."""

    def test_export_and_import(self, manager, sample_document, tmp_path):
        """测试导出后再导入."""
        template = manager.create_template("A", description="d", design=sample_document)
        path = manager.export_template(template.id, str(tmp_path / "a.template.json"))

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["name"] == "A"

        imported = manager.import_template(str(path))
        assert imported.id != template.id
        assert imported.description == "d"
        assert imported.design_data == sample_document

    def test_import_name_from_filename(self, manager, tmp_path):
        """测试文件中没有名称时使用文件名."""
        path = tmp_path / "diploma.template.json"
        path.write_text(json.dumps({"design_data": None}), encoding="utf-8")
        assert manager.import_template(str(path)).name == "diploma"

    def test_import_invalid_file(self, manager, tmp_path):
        """测试导入无效文件."""
        path = tmp_path / "bad.template.json"
        path.write_text("not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            manager.import_template(str(path))


class TestCertificateDesign:
    """默认证书设计测试类."""

    def test_default_design(self):
        """测试默认证书为横向并包含占位符."""
        document = create_certificate_design()
        assert document.properties.orientation == Orientation.LANDSCAPE
        placeholders = [e.content for e in document.elements if e.is_placeholder]
        assert "{{recipient.name}}" in placeholders
        assert len({e.id for e in document.elements}) == len(document.elements)


class TestInvalidDesignData:
    """无效设计数据测试类."""

    @pytest.fixture
    def corrupt_record(self, db_service) -> str:
        """存储中元素类型无效的模板."""
        with db_service.session_scope() as session:
            session.add(
                TemplateRecord(
                    id="corrupt",
                    user_id="user-1",
                    name="Corrupt",
                    design_data={"elements": [{"type": "circle"}]},
                )
            )
        return "corrupt"

    def test_load_invalid_element_type(self, manager, corrupt_record):
        """测试加载无效的存储数据时抛出加载错误."""
        with pytest.raises(TemplateLoadError) as exc_info:
            manager.load_template(corrupt_record)
        assert exc_info.value.template_id == corrupt_record

    def test_load_duplicate_element_ids(self, manager, db_service):
        """测试存储的元素 ID 重复时抛出加载错误."""
        with db_service.session_scope() as session:
            session.add(
                TemplateRecord(
                    id="dup",
                    user_id="user-1",
                    name="Dup",
                    design_data={"elements": [{"id": "a", "type": "text"}, {"id": "a", "type": "shape"}]},
                )
            )
        with pytest.raises(TemplateLoadError):
            manager.load_template("dup")

    def test_list_keeps_corrupt_record(self, manager, corrupt_record):
        """测试列表中仍显示无效模板，以便删除."""
        metadata = manager.list_templates()
        assert [m.id for m in metadata] == [corrupt_record]
        assert metadata[0].element_count == 0
        manager.delete_template(corrupt_record)
        assert manager.list_templates() == []

    def test_import_invalid_design(self, manager, tmp_path):
        """测试导入设计数据无效的文件."""
        path = tmp_path / "bad.template.json"
        path.write_text(
            json.dumps({"name": "Bad", "design_data": {"elements": [{"type": "bogus"}]}}),
            encoding="utf-8",
        )
        with pytest.raises(PersistenceError):
            manager.import_template(str(path))
        assert manager.list_templates() == []

    @pytest.mark.parametrize("content", ["[]", "42", '"text"'])
    def test_import_non_object(self, manager, tmp_path, content):
        """测试导入顶层不是对象的文件."""
        path = tmp_path / "list.template.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(PersistenceError):
            manager.import_template(str(path))

    def test_import_design_not_object(self, manager, tmp_path):
        """测试 design_data 不是对象."""
        path = tmp_path / "x.template.json"
        path.write_text(json.dumps({"name": "X", "design_data": [1, 2]}), encoding="utf-8")
        with pytest.raises(PersistenceError):
            manager.import_template(str(path))

    def test_import_non_string_name(self, manager, tmp_path):
        """测试名称不是字符串时使用文件名."""
        path = tmp_path / "award.template.json"
        path.write_text(json.dumps({"name": 7, "description": None}), encoding="utf-8")
        imported = manager.import_template(str(path))
        assert imported.name == "award"
        assert imported.description == ""
