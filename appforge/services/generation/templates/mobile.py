"""
Mobile generator: an Expo Router project.

``structure.navigation.type == "tabs"`` (the default) puts every page in a
bottom tab bar under ``app/(tabs)``; any other type uses a plain stack.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from appforge.models.schemas.app_schema import section

from .common import (
    FileSet,
    TemplateFile,
    auth_enabled,
    colors,
    database_enabled,
    feature,
    is_home,
    js_string,
    meta_description,
    meta_name,
    page_components,
    page_sources,
    pages,
    pascal_case,
    prop_default,
    radius,
    slugify,
    to_json,
)

Schema = Dict[str, Any]

RESERVED_SCREENS = {"index", "login", "signup", "_layout", "+not-found"}

TAB_ICONS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("home", "index"), "home"),
    (("search", "explore", "discover"), "search"),
    (("profile", "account", "me"), "person"),
    (("setting",), "settings"),
    (("message", "chat", "inbox"), "chatbubbles"),
    (("notification", "alert"), "notifications"),
    (("cart", "shop", "store"), "cart"),
    (("favorite", "saved", "like"), "heart"),
    (("calendar", "schedule", "event"), "calendar"),
)

RADIUS_PIXELS = {"0": 0, "0.5rem": 8, "0.75rem": 12, "1rem": 16, "1.5rem": 24, "9999px": 9999}


def uses_tabs(schema: Schema) -> bool:
    nav_type = section(schema, "structure", "navigation", "type")
    return nav_type in (None, "tabs")


def tab_icon(page: Dict[str, Any]) -> str:
    words = set(re.findall(r"[a-z]+", f"{page.get('name') or ''} {page.get('path') or ''}".lower()))
    for keywords, icon in TAB_ICONS:
        if any(word.startswith(keyword) for word in words for keyword in keywords):
            return icon
    return "ellipse"


def generate_mobile(schema: Schema) -> List[TemplateFile]:
    files = FileSet()
    with_supabase = auth_enabled(schema) or database_enabled(schema)
    tabs = uses_tabs(schema)

    files.add("package.json", _package_json(schema, with_supabase), ("meta", "features.auth", "features.database"))
    files.add("app.json", _app_json(schema), ("meta",))
    files.add("tsconfig.json", TSCONFIG)
    files.add("babel.config.js", BABEL_CONFIG)
    files.add("expo-env.d.ts", EXPO_ENV)
    files.add("constants/Colors.ts", _colors_ts(schema), ("design",))
    files.add("app/_layout.tsx", _root_layout(tabs, with_supabase), ("structure.navigation", "features.auth", "features.database"))

    screen_dir = "app/(tabs)" if tabs else "app"
    all_pages = pages(schema)
    home = next((p for p in all_pages if is_home(p)), all_pages[0] if all_pages else None)
    screens: List[Tuple[str, Dict[str, Any]]] = []

    # the index screen shows a sign-in button when auth screens exist
    index_extra = ("meta", "features.auth", "features.database")
    if home is not None:
        home_sources = page_sources(schema, home, *index_extra)
        if not is_home(home):
            home_sources += ("pages",)
    else:
        home_sources = index_extra + ("pages",)
    files.add(f"{screen_dir}/index.tsx", _screen(schema, home, "Home", is_index=True), home_sources)
    screens.append(("index", home if home is not None else {"name": "Home", "title": "Home"}))

    used = set(RESERVED_SCREENS)
    for page in all_pages:
        if page is home:
            continue
        stem = slugify(str(page.get("name") or page.get("id") or ""), default="screen")
        base, counter = stem, 2
        while stem in used:
            stem = f"{base}-{counter}"
            counter += 1
        used.add(stem)
        extra = ("pages",) if stem != base else ()
        files.add(
            f"{screen_dir}/{stem}.tsx",
            _screen(schema, page, pascal_case(stem, default="Screen")),
            page_sources(schema, page, *extra),
        )
        screens.append((stem, page))

    if tabs:
        tab_sources = ("pages",) + tuple(f"page:{p.get('id')}" for p in all_pages)
        files.add("app/(tabs)/_layout.tsx", _tabs_layout(screens), tab_sources)

    files.add("components/Button.tsx", BUTTON_TSX)
    files.add("components/Card.tsx", CARD_TSX)
    files.add("components/ThemedText.tsx", THEMED_TEXT_TSX)
    files.add("components/ThemedView.tsx", THEMED_VIEW_TSX)
    files.add("hooks/useColorScheme.ts", USE_COLOR_SCHEME_TS)

    if with_supabase:
        auth = feature(schema, "auth") or {}
        auth_sources = ("features.auth", "features.database")
        files.add("lib/supabase.ts", SUPABASE_TS, auth_sources)
        files.add("app/login.tsx", _login_screen(auth), auth_sources)
        files.add("app/signup.tsx", _signup_screen(auth), auth_sources)
        files.add(".env.example", ENV_EXAMPLE, auth_sources)

    return files.files


# =============================================================================
# PROJECT FILES
# =============================================================================

def _package_json(schema: Schema, with_supabase: bool) -> str:
    dependencies = {
        "@expo/vector-icons": "^14.0.0",
        "@react-navigation/native": "^6.1.9",
        "expo": "~50.0.0",
        "expo-constants": "~15.4.0",
        "expo-linking": "~6.2.0",
        "expo-router": "~3.4.0",
        "expo-status-bar": "~1.11.0",
        "react": "18.2.0",
        "react-native": "0.73.4",
        "react-native-safe-area-context": "4.8.2",
        "react-native-screens": "~3.29.0",
    }
    if with_supabase:
        dependencies.update({
            "@react-native-async-storage/async-storage": "1.21.0",
            "@supabase/supabase-js": "^2.39.0",
            "expo-secure-store": "~12.8.0",
            "react-native-url-polyfill": "^2.0.0",
        })
    package = {
        "name": slugify(meta_name(schema), default="app"),
        "version": "1.0.0",
        "main": "expo-router/entry",
        "private": True,
        "scripts": {
            "start": "expo start",
            "android": "expo start --android",
            "ios": "expo start --ios",
            "web": "expo start --web",
        },
        "dependencies": dict(sorted(dependencies.items())),
        "devDependencies": {
            "@babel/core": "^7.20.0",
            "@types/react": "~18.2.45",
            "typescript": "^5.1.3",
        },
    }
    return to_json(package)


def _app_json(schema: Schema) -> str:
    slug = slugify(meta_name(schema), default="app")
    return to_json({
        "expo": {
            "name": meta_name(schema),
            "slug": slug,
            "version": "1.0.0",
            "orientation": "portrait",
            "scheme": slug,
            "userInterfaceStyle": "automatic",
            "ios": {"supportsTablet": True},
            "plugins": ["expo-router"],
            "experiments": {"typedRoutes": True},
        }
    })


def _colors_ts(schema: Schema) -> str:
    palette = colors(schema)
    corner = RADIUS_PIXELS.get(radius(schema), 12)
    return f"""const primary = {js_string(palette['primary'])};
const accent = {js_string(palette['accent'])};

export default {{
  light: {{
    text: {js_string(palette['foreground'])},
    background: {js_string(palette['background'])},
    tint: primary,
    primary,
    secondary: {js_string(palette['secondary'])},
    accent,
    muted: {js_string(palette['muted'])},
    border: {js_string(palette['border'])},
    error: {js_string(palette['error'])},
    tabIconDefault: {js_string(palette['muted'])},
    tabIconSelected: primary,
  }},
  dark: {{
    text: '#fafafa',
    background: '#0a0a0a',
    tint: accent,
    primary,
    secondary: {js_string(palette['secondary'])},
    accent,
    muted: '#a1a1aa',
    border: '#27272a',
    error: {js_string(palette['error'])},
    tabIconDefault: '#a1a1aa',
    tabIconSelected: accent,
  }},
}};

export const Radius = {corner};
"""


def _root_layout(tabs: bool, with_auth_screens: bool) -> str:
    screens = []
    if tabs:
        screens.append('        <Stack.Screen name="(tabs)" options={{ headerShown: false }} />')
    if with_auth_screens:
        screens.append('        <Stack.Screen name="login" options={{ title: \'Sign In\' }} />')
        screens.append('        <Stack.Screen name="signup" options={{ title: \'Create Account\' }} />')
    body = "\n".join(screens)
    return f"""import {{ DarkTheme, DefaultTheme, ThemeProvider }} from '@react-navigation/native';
import {{ Stack }} from 'expo-router';
import {{ StatusBar }} from 'expo-status-bar';
import {{ useColorScheme }} from '@/hooks/useColorScheme';

export default function RootLayout() {{
  const colorScheme = useColorScheme();

  return (
    <ThemeProvider value={{colorScheme === 'dark' ? DarkTheme : DefaultTheme}}>
      <Stack>
{body}
      </Stack>
      <StatusBar style="auto" />
    </ThemeProvider>
  );
}}
"""


def _tabs_layout(screens: List[Tuple[str, Dict[str, Any]]]) -> str:
    entries = []
    for name, page in screens:
        title = page.get("title") or page.get("name") or name
        entries.append(f"""      <Tabs.Screen
        name={js_string(name)}
        options={{{{
          title: {js_string(title)},
          tabBarIcon: ({{ color, size }}) => <Ionicons name={js_string(tab_icon(page))} color={{color}} size={{size}} />,
        }}}}
      />""")
    return f"""import {{ Tabs }} from 'expo-router';
import {{ Ionicons }} from '@expo/vector-icons';
import Colors from '@/constants/Colors';
import {{ useColorScheme }} from '@/hooks/useColorScheme';

export default function TabLayout() {{
  const colorScheme = useColorScheme();

  return (
    <Tabs screenOptions={{{{ tabBarActiveTintColor: Colors[colorScheme ?? 'light'].tint }}}}>
{chr(10).join(entries)}
    </Tabs>
  );
}}
"""


# =============================================================================
# SCREENS
# =============================================================================

def _screen(schema: Schema, page: Optional[Dict[str, Any]], name: str, is_index: bool = False) -> str:
    if page is None or is_index:
        title = meta_name(schema) if is_index else name
        subtitle = meta_description(schema)
    else:
        title = page.get("title") or page.get("name") or name
        subtitle = page.get("description") or ""

    blocks = []
    for component in page_components(schema, page) if page else []:
        heading = prop_default(component, "title", str(component.get("name") or component.get("type") or "Section"))
        body = prop_default(component, "description", prop_default(component, "subtitle", ""))
        blocks.append(f"""        <Card>
          <ThemedText style={{styles.cardTitle}}>{{{js_string(heading)}}}</ThemedText>
          <ThemedText style={{styles.cardBody}}>{{{js_string(body)}}}</ThemedText>
        </Card>""")
    cta = '\n        <Button title="Get Started" onPress={() => router.push(\'/login\')} />' if is_index and _has_login(schema) else ""
    imports = ["import { StyleSheet, ScrollView } from 'react-native';"]
    if cta:
        imports.append("import { router } from 'expo-router';")
    imports.extend([
        "import { ThemedView } from '@/components/ThemedView';",
        "import { ThemedText } from '@/components/ThemedText';",
    ])
    if cta:
        imports.append("import { Button } from '@/components/Button';")
    if blocks:
        imports.append("import { Card } from '@/components/Card';")

    content = "\n".join(blocks)
    return f"""{chr(10).join(imports)}

export default function {name}Screen() {{
  return (
    <ScrollView contentContainerStyle={{styles.container}}>
      <ThemedView style={{styles.header}}>
        <ThemedText style={{styles.title}}>{{{js_string(title)}}}</ThemedText>
        <ThemedText style={{styles.subtitle}}>{{{js_string(subtitle)}}}</ThemedText>{cta}
      </ThemedView>
      <ThemedView style={{styles.content}}>
{content}
      </ThemedView>
    </ScrollView>
  );
}}

const styles = StyleSheet.create({{
  container: {{ flexGrow: 1 }},
  header: {{ padding: 24, paddingTop: 48 }},
  title: {{ fontSize: 28, fontWeight: 'bold', marginBottom: 8 }},
  subtitle: {{ fontSize: 16, opacity: 0.7, marginBottom: 16 }},
  content: {{ paddingHorizontal: 24, gap: 12 }},
  cardTitle: {{ fontSize: 18, fontWeight: '600', marginBottom: 4 }},
  cardBody: {{ opacity: 0.7 }},
}});
"""


def _has_login(schema: Schema) -> bool:
    return auth_enabled(schema) or database_enabled(schema)


def _login_screen(auth: Dict[str, Any]) -> str:
    redirect = js_string(auth.get("redirectAfterLogin") or "/")
    return f"""import {{ useState }} from 'react';
import {{ StyleSheet, TextInput, View, Alert }} from 'react-native';
import {{ Link, router }} from 'expo-router';
import {{ ThemedText }} from '@/components/ThemedText';
import {{ ThemedView }} from '@/components/ThemedView';
import {{ Button }} from '@/components/Button';
import {{ supabase }} from '@/lib/supabase';

export default function LoginScreen() {{
  const [email, setEmail] = useState('');
  const [password, setPassword] = useState('');
  const [loading, setLoading] = useState(false);

  const signIn = async () => {{
    setLoading(true);
    const {{ error }} = await supabase.auth.signInWithPassword({{ email, password }});
    setLoading(false);
    if (error) {{
      Alert.alert('Sign in failed', error.message);
      return;
    }}
    router.replace({redirect});
  }};

  return (
    <ThemedView style={{styles.container}}>
      <ThemedText style={{styles.title}}>Welcome back</ThemedText>
      <TextInput style={{styles.input}} placeholder="Email" autoCapitalize="none" keyboardType="email-address" value={{email}} onChangeText={{setEmail}} />
      <TextInput style={{styles.input}} placeholder="Password" secureTextEntry value={{password}} onChangeText={{setPassword}} />
      <Button title={{loading ? 'Signing in...' : 'Sign In'}} onPress={{signIn}} disabled={{loading}} />
      <View style={{styles.footer}}>
        <Link href="/signup"><ThemedText>Don't have an account? Sign up</ThemedText></Link>
      </View>
    </ThemedView>
  );
}}

const styles = StyleSheet.create({{
  container: {{ flex: 1, padding: 24, justifyContent: 'center', gap: 12 }},
  title: {{ fontSize: 28, fontWeight: 'bold', marginBottom: 12 }},
  input: {{ borderWidth: 1, borderColor: '#d4d4d8', borderRadius: 8, padding: 12 }},
  footer: {{ marginTop: 16, alignItems: 'center' }},
}});
"""


def _signup_screen(auth: Dict[str, Any]) -> str:
    min_length = int(auth.get("passwordMinLength") or 8)
    return f"""import {{ useState }} from 'react';
import {{ StyleSheet, TextInput, View, Alert }} from 'react-native';
import {{ Link, router }} from 'expo-router';
import {{ ThemedText }} from '@/components/ThemedText';
import {{ ThemedView }} from '@/components/ThemedView';
import {{ Button }} from '@/components/Button';
import {{ supabase }} from '@/lib/supabase';

const MIN_PASSWORD_LENGTH = {min_length};

export default function SignupScreen() {{
  const [email, setEmail] = useState('');
  const [password, setPassword] = useState('');
  const [loading, setLoading] = useState(false);

  const signUp = async () => {{
    if (password.length < MIN_PASSWORD_LENGTH) {{
      Alert.alert('Password too short', `Use at least ${{MIN_PASSWORD_LENGTH}} characters.`);
      return;
    }}
    setLoading(true);
    const {{ error }} = await supabase.auth.signUp({{ email, password }});
    setLoading(false);
    if (error) {{
      Alert.alert('Sign up failed', error.message);
      return;
    }}
    Alert.alert('Check your email', 'Confirm your address to finish signing up.');
    router.replace('/login');
  }};

  return (
    <ThemedView style={{styles.container}}>
      <ThemedText style={{styles.title}}>Create account</ThemedText>
      <TextInput style={{styles.input}} placeholder="Email" autoCapitalize="none" keyboardType="email-address" value={{email}} onChangeText={{setEmail}} />
      <TextInput style={{styles.input}} placeholder="Password" secureTextEntry value={{password}} onChangeText={{setPassword}} />
      <Button title={{loading ? 'Creating account...' : 'Sign Up'}} onPress={{signUp}} disabled={{loading}} />
      <View style={{styles.footer}}>
        <Link href="/login"><ThemedText>Already have an account? Sign in</ThemedText></Link>
      </View>
    </ThemedView>
  );
}}

const styles = StyleSheet.create({{
  container: {{ flex: 1, padding: 24, justifyContent: 'center', gap: 12 }},
  title: {{ fontSize: 28, fontWeight: 'bold', marginBottom: 12 }},
  input: {{ borderWidth: 1, borderColor: '#d4d4d8', borderRadius: 8, padding: 12 }},
  footer: {{ marginTop: 16, alignItems: 'center' }},
}});
"""


# =============================================================================
# STATIC FILES
# =============================================================================

TSCONFIG = to_json({
    "extends": "expo/tsconfig.base",
    "compilerOptions": {"strict": True, "paths": {"@/*": ["./*"]}},
    "include": ["**/*.ts", "**/*.tsx", ".expo/types/**/*.ts", "expo-env.d.ts"],
})

BABEL_CONFIG = """module.exports = function (api) {
  api.cache(true);
  return {
    presets: ['babel-preset-expo'],
  };
};
"""

EXPO_ENV = """/// <reference types="expo/types" />
"""

BUTTON_TSX = """import { TouchableOpacity, Text, StyleSheet } from 'react-native';
import Colors, { Radius } from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

type ButtonProps = {
  title: string;
  onPress: () => void;
  variant?: 'primary' | 'outline';
  disabled?: boolean;
};

export function Button({ title, onPress, variant = 'primary', disabled = false }: ButtonProps) {
  const colors = Colors[useColorScheme() ?? 'light'];
  const filled = variant === 'primary';

  return (
    <TouchableOpacity
      onPress={onPress}
      disabled={disabled}
      style={[
        styles.button,
        { borderRadius: Radius, borderColor: colors.primary, backgroundColor: filled ? colors.primary : 'transparent' },
        disabled && styles.disabled,
      ]}
    >
      <Text style={[styles.label, { color: filled ? '#ffffff' : colors.primary }]}>{title}</Text>
    </TouchableOpacity>
  );
}

const styles = StyleSheet.create({
  button: { paddingVertical: 14, paddingHorizontal: 20, alignItems: 'center', borderWidth: 1 },
  label: { fontSize: 16, fontWeight: '600' },
  disabled: { opacity: 0.6 },
});
"""

CARD_TSX = """import { View, StyleSheet, type ViewProps } from 'react-native';
import Colors, { Radius } from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

export function Card({ style, ...props }: ViewProps) {
  const colors = Colors[useColorScheme() ?? 'light'];
  return <View style={[styles.card, { borderRadius: Radius, borderColor: colors.border }, style]} {...props} />;
}

const styles = StyleSheet.create({
  card: { borderWidth: 1, padding: 16 },
});
"""

THEMED_TEXT_TSX = """import { Text, type TextProps } from 'react-native';
import Colors from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

export function ThemedText({ style, ...props }: TextProps) {
  const colors = Colors[useColorScheme() ?? 'light'];
  return <Text style={[{ color: colors.text }, style]} {...props} />;
}
"""

THEMED_VIEW_TSX = """import { View, type ViewProps } from 'react-native';
import Colors from '@/constants/Colors';
import { useColorScheme } from '@/hooks/useColorScheme';

export function ThemedView({ style, ...props }: ViewProps) {
  const colors = Colors[useColorScheme() ?? 'light'];
  return <View style={[{ backgroundColor: colors.background }, style]} {...props} />;
}
"""

USE_COLOR_SCHEME_TS = """export { useColorScheme } from 'react-native';
"""

SUPABASE_TS = """import 'react-native-url-polyfill/auto';
import AsyncStorage from '@react-native-async-storage/async-storage';
import { createClient } from '@supabase/supabase-js';

const supabaseUrl = process.env.EXPO_PUBLIC_SUPABASE_URL ?? '';
const supabaseAnonKey = process.env.EXPO_PUBLIC_SUPABASE_ANON_KEY ?? '';

export const supabase = createClient(supabaseUrl, supabaseAnonKey, {
  auth: {
    storage: AsyncStorage,
    autoRefreshToken: true,
    persistSession: true,
    detectSessionInUrl: false,
  },
});
"""

ENV_EXAMPLE = """EXPO_PUBLIC_SUPABASE_URL=https://your-project.supabase.co
EXPO_PUBLIC_SUPABASE_ANON_KEY=your-anon-key
"""
