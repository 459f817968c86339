"""String template for a complete CRUD page component (Jinja2-free)."""
from typing import Dict, List, Optional

from matura.generators.component_gen.utils import (
    component_name,
    crud_endpoint,
    initial_form,
    input_type,
    record_type_name,
    ts_literal,
    ts_type,
)
from matura.inference.types import AppSchema, DesignSpec, SchemaField

DEFAULT_COLORS = {"primary": "#3B82F6", "background": "#F8FAFC", "text": "#0F172A", "accent": "#10B981"}


def jsx_text(value: str) -> str:
    """Text as a JSX string expression, so braces and quotes in it stay inert."""
    return "{" + ts_literal(str(value)) + "}"


def render_interface(schema: AppSchema) -> List[str]:
    lines = [f"interface {record_type_name(schema)} {{"]
    for f in schema.fields:
        optional = "" if (f.required or f.system) else "?"
        lines.append(f"  {f.name}{optional}: {ts_type(f)}")
    lines.append("}")
    return lines


def render_field_input(f: SchemaField) -> List[str]:
    """Form control for one field, bound to ``form`` / ``setField``."""
    label = f.label or f.name
    name = ts_literal(f.name)
    lines = ["        <div className=\"space-y-1\">", f"          <Label htmlFor={name}>{jsx_text(label)}</Label>"]
    if f.type == "boolean":
        lines.append(
            f"          <Checkbox id={name} checked={{Boolean(form.{f.name})}} "
            f"onCheckedChange={{(v) => setField({name}, v === true)}} />"
        )
    elif f.type == "textarea" or f.type == "json":
        lines.append(
            f"          <Textarea id={name} value={{String(form.{f.name} ?? '')}} "
            f"onChange={{(e) => setField({name}, e.target.value)}} />"
        )
    elif f.type == "select" and f.options:
        lines.append(
            f"          <select id={name} className=\"w-full rounded-md border px-3 py-2\" "
            f"value={{String(form.{f.name} ?? '')}} onChange={{(e) => setField({name}, e.target.value)}}>"
        )
        for opt in f.options:
            lines.append(f"            <option value={ts_literal(opt)}>{jsx_text(opt)}</option>")
        lines.append("          </select>")
    elif f.type == "number":
        lines.append(
            f"          <Input id={name} type=\"number\" value={{Number(form.{f.name} ?? 0)}} "
            f"onChange={{(e) => setField({name}, Number(e.target.value))}} />"
        )
    else:
        lines.append(
            f"          <Input id={name} type=\"{input_type(f)}\" value={{String(form.{f.name} ?? '')}} "
            f"onChange={{(e) => setField({name}, e.target.value)}}{' required' if f.required else ''} />"
        )
    lines.append("        </div>")
    return lines


def render_field_display(f: SchemaField) -> str:
    label = f.label or f.name
    if f.type == "boolean":
        return (
            f"                <Badge variant={{item.{f.name} ? 'default' : 'secondary'}}>"
            f"{jsx_text(label + ': ')}{{item.{f.name} ? '✓' : '-'}}</Badge>"
        )
    return f"                <p className=\"text-sm\"><span className=\"font-medium\">{jsx_text(label + ':')}</span> {{String(item.{f.name} ?? '')}}</p>"


def render_component(schema: AppSchema, design: Optional[DesignSpec] = None, title: str = "") -> str:
    """Render a self-contained Next.js client component wired to ``/api/crud/{table}``."""
    colors: Dict[str, str] = dict(DEFAULT_COLORS)
    if design is not None:
        colors.update(design.colors)
    record = record_type_name(schema)
    name = component_name(schema)
    endpoint = crud_endpoint(schema.table_name)
    user_fields = schema.user_fields
    title = title or schema.description or schema.table_name
    primary = user_fields[0].name if user_fields else "id"

    lines = [
        "'use client'",
        "",
        "import { useState, useEffect, FormEvent } from 'react'",
        "import { Button } from '@/components/ui/button'",
        "import { Input } from '@/components/ui/input'",
        "import { Label } from '@/components/ui/label'",
        "import { Textarea } from '@/components/ui/textarea'",
        "import { Checkbox } from '@/components/ui/checkbox'",
        "import { Badge } from '@/components/ui/badge'",
        "import { Card, CardContent, CardHeader, CardTitle } from '@/components/ui/card'",
        "",
    ]
    lines.extend(render_interface(schema))
    lines.extend([
        "",
        f"const API_URL = '{endpoint}'",
        f"const EMPTY_FORM: Partial<{record}> = {ts_literal(initial_form(schema))}",
        "",
        f"export default function {name}() {{",
        f"  const [items, setItems] = useState<{record}[]>([])",
        f"  const [form, setForm] = useState<Partial<{record}>>(EMPTY_FORM)",
        "  const [editingId, setEditingId] = useState<string | null>(null)",
        "  const [loading, setLoading] = useState<boolean>(true)",
        "  const [error, setError] = useState<string | null>(null)",
        "",
        "  const setField = (key: string, value: unknown) => {",
        "    setForm((prev) => ({ ...prev, [key]: value }))",
        "  }",
        "",
        "  const fetchItems = async () => {",
        "    try {",
        "      setLoading(true)",
        "      const res = await fetch(API_URL)",
        "      if (!res.ok) throw new Error(`HTTP ${res.status}`)",
        "      const json = await res.json()",
        "      setItems(json.data ?? [])",
        "      setError(null)",
        "    } catch (e) {",
        "      setError(e instanceof Error ? e.message : String(e))",
        "    } finally {",
        "      setLoading(false)",
        "    }",
        "  }",
        "",
        "  useEffect(() => {",
        "    fetchItems()",
        "  }, [])",
        "",
        "  const createItem = async () => {",
        "    const res = await fetch(API_URL, {",
        "      method: 'POST',",
        "      headers: { 'Content-Type': 'application/json' },",
        "      body: JSON.stringify(form),",
        "    })",
        "    if (!res.ok) throw new Error(`HTTP ${res.status}`)",
        "  }",
        "",
        "  const updateItem = async (id: string) => {",
        "    const res = await fetch(`${API_URL}?id=${id}`, {",
        "      method: 'PUT',",
        "      headers: { 'Content-Type': 'application/json' },",
        "      body: JSON.stringify(form),",
        "    })",
        "    if (!res.ok) throw new Error(`HTTP ${res.status}`)",
        "  }",
        "",
        "  const deleteItem = async (id: string) => {",
        "    try {",
        "      const res = await fetch(`${API_URL}?id=${id}`, { method: 'DELETE' })",
        "      if (!res.ok) throw new Error(`HTTP ${res.status}`)",
        "      await fetchItems()",
        "    } catch (e) {",
        "      setError(e instanceof Error ? e.message : String(e))",
        "    }",
        "  }",
        "",
        "  const handleSubmit = async (e: FormEvent) => {",
        "    e.preventDefault()",
        "    try {",
        "      if (editingId) {",
        "        await updateItem(editingId)",
        "      } else {",
        "        await createItem()",
        "      }",
        "      setForm(EMPTY_FORM)",
        "      setEditingId(null)",
        "      await fetchItems()",
        "    } catch (e) {",
        "      setError(e instanceof Error ? e.message : String(e))",
        "    }",
        "  }",
        "",
        f"  const startEdit = (item: {record}) => {{",
        "    setEditingId(item.id)",
        "    setForm(item)",
        "  }",
        "",
        "  return (",
        f"    <div className=\"min-h-screen p-4 md:p-8\" style={{{{ backgroundColor: '{colors['background']}', color: '{colors['text']}' }}}}>",
        "      <div className=\"mx-auto max-w-4xl space-y-6\">",
        f"        <h1 className=\"text-2xl font-bold md:text-3xl\" style={{{{ color: '{colors['primary']}' }}}}>{jsx_text(title)}</h1>",
        "        {error && <p className=\"rounded-md bg-red-50 p-3 text-sm text-red-600\">{error}</p>}",
        "        <Card>",
        "          <CardHeader>",
        "            <CardTitle>{editingId ? 'Edit' : 'New'}</CardTitle>",
        "          </CardHeader>",
        "          <CardContent>",
        "            <form onSubmit={handleSubmit} className=\"grid gap-4 md:grid-cols-2\">",
    ])
    for f in user_fields:
        lines.extend("    " + line for line in render_field_input(f))
    lines.extend([
        "              <div className=\"flex gap-2 md:col-span-2\">",
        f"                <Button type=\"submit\" style={{{{ backgroundColor: '{colors['primary']}' }}}}>{{editingId ? 'Update' : 'Create'}}</Button>",
        "                {editingId && (",
        "                  <Button type=\"button\" variant=\"outline\" onClick={() => { setEditingId(null); setForm(EMPTY_FORM) }}>",
        "                    Cancel",
        "                  </Button>",
        "                )}",
        "              </div>",
        "            </form>",
        "          </CardContent>",
        "        </Card>",
        "        {loading ? (",
        "          <p className=\"text-sm text-gray-500\">Loading...</p>",
        "        ) : items.length === 0 ? (",
        "          <p className=\"text-sm text-gray-500\">No records yet</p>",
        "        ) : (",
        "          <div className=\"grid gap-4 md:grid-cols-2\">",
        "            {items.map((item) => (",
        "              <Card key={item.id} className=\"transition-shadow hover:shadow-md\">",
        "                <CardHeader>",
        f"                  <CardTitle className=\"text-lg\">{{String(item.{primary} ?? '')}}</CardTitle>",
        "                </CardHeader>",
        "                <CardContent className=\"space-y-1\">",
    ])
    for f in user_fields[1:]:
        lines.append("  " + render_field_display(f))
    lines.extend([
        "                  <div className=\"flex gap-2 pt-2\">",
        "                    <Button size=\"sm\" variant=\"outline\" onClick={() => startEdit(item)}>Edit</Button>",
        "                    <Button size=\"sm\" variant=\"destructive\" onClick={() => deleteItem(item.id)}>Delete</Button>",
        "                  </div>",
        "                </CardContent>",
        "              </Card>",
        "            ))}",
        "          </div>",
        "        )}",
        "      </div>",
        "    </div>",
        "  )",
        "}",
        "",
    ])
    return "\n".join(lines)
